import sys

from mrengine.client.client import main

sys.exit(main())
