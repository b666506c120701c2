"""Allow running as: python -m bid_requirements"""

from bid_requirements.main import main

if __name__ == "__main__":
    main()
