from redwood.main import main

raise SystemExit(main())
