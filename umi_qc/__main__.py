"""Allow ``python -m umi_qc``."""

from umi_qc.cli.main import main

if __name__ == "__main__":
    main()
