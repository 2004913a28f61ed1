from csvgraph import Pipeline, Source, Transform
from csvgraph.errors import CsvGraphUserError
from csvgraph.tests import DATA_DIR

posts = Source(DATA_DIR / "posts.csv")

for how in ("inner", "left", "right", "full"):
    pipe = Pipeline(posts).then(Transform("join", params={
        "right": Source(DATA_DIR / "comments.csv"),
        "left_on": "id",
        "right_on": "post_id",
        "how": how,
        "rsuffix": "comments",
    }))
    print(how)
    for row in pipe.preview(10):
        print("  ", ",".join(row))

try:
    Pipeline(posts).then(Transform("join", params={
        "right": DATA_DIR / "comments.csv",
        "left_on": "post_id",
        "right_on": "post_id",
    })).preview()
except CsvGraphUserError as e:
    print(e)
