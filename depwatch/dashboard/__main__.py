"""
Run the dashboard: python -m depwatch.dashboard
"""
from depwatch.dashboard.api import main


if __name__ == "__main__":
    main()
