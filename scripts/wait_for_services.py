import sys
import time

import requests

SERVICES = {
    "scheduling": "http://localhost:3001",
    "audio": "http://localhost:3002",
    "progress": "http://localhost:3003",
    "image": "http://localhost:3004",
}
MAX_RETRIES = 30
DELAY = 1


def check_service(name, base_url):
    try:
        response = requests.get(f"{base_url}/health", timeout=1)
        if response.status_code == 200:
            print(f"{name} is ready!")
            return True
    except requests.exceptions.RequestException:
        pass
    return False


def main():
    pending = dict(SERVICES)
    print(f"Waiting for {', '.join(pending)}...")
    for i in range(MAX_RETRIES):
        pending = {n: url for n, url in pending.items() if not check_service(n, url)}
        if not pending:
            sys.exit(0)
        time.sleep(DELAY)
        print(f"Retry {i + 1}/{MAX_RETRIES}, still waiting for {', '.join(pending)}...")

    print(f"Timed out waiting for {', '.join(pending)}.")
    sys.exit(1)


if __name__ == "__main__":
    main()
