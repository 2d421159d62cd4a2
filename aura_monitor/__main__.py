import sys

from aura_monitor.agent_worker.runtime import main

sys.exit(main())
