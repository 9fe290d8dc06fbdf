from .walterc import main

raise SystemExit(main())
