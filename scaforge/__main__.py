from scaforge.cli import main

raise SystemExit(main())
