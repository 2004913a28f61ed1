from csvgraph.cli import main

raise SystemExit(main())
