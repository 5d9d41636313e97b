# config/tools/validate_env.py

import sys           # for exit codes
from pprint import pprint  # for structured printing
from dataclasses import asdict

# make src discoverable if running as a script
from pathlib import Path
# __file__ is .../config/tools/validate_env.py
# parents[2] is the project root; append ROOT/src
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(PROJECT_ROOT / "src"))

from env.loader import load_environment  # import our loader


def main(argv=None) -> None:
    """Load and print the resolved bridge profile, failing fast on errors."""
    argv = sys.argv[1:] if argv is None else argv
    profile_name = argv[0] if argv else None
    try:
        profile = load_environment(profile_name=profile_name)
    except (OSError, KeyError, ValueError, TypeError) as e:
        # TypeError: unknown keys inside a config section
        print("Environment validation FAILED:", file=sys.stderr)
        print(repr(e), file=sys.stderr)
        sys.exit(1)                          # non-zero exit: CI will mark as failed

    print("Environment validation OK.")
    print("\nActive profile:", profile.name)
    print("\nSession:")
    pprint(asdict(profile.session))
    print("\nReconnect:")
    pprint(asdict(profile.reconnect))
    print("\nTimeouts:")
    pprint(asdict(profile.timeouts))
    print("\nDig area:")
    pprint(asdict(profile.dig_area))
    print("\nMonitoring:")
    pprint(asdict(profile.monitoring))


if __name__ == "__main__":
    main()  # run main() only when script is executed directly
