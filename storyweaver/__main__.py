import sys

from storyweaver.cli import main

sys.exit(main())
