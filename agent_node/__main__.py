from agent_node.main import main

raise SystemExit(main())
