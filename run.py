import sys

from sim_vm.cli import main


if __name__ == "__main__":
    sys.exit(main())
