import sys

from cliphistory.main import main

sys.exit(main())
