#!/usr/bin/env python3
"""
Continuous traffic generator for the marketplace-management service.
Runs until manually stopped with Ctrl+C. Accounts are read from
MARKETPLACE_ACCOUNTS, as in generate-traffic.py.
"""
import os
import signal
import subprocess
import sys

CONCURRENT_SHOPPERS = os.getenv("TRAFFIC_SHOPPERS", "20")

process = None


def signal_handler(sig, frame):
    print('\n\nStopping traffic generation...')
    if process:
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
    sys.exit(0)


signal.signal(signal.SIGINT, signal_handler)
signal.signal(signal.SIGTERM, signal_handler)

if __name__ == "__main__":
    print("Starting continuous marketplace traffic...")
    print("Press Ctrl+C to stop")
    print(f"Using {CONCURRENT_SHOPPERS} concurrent shoppers\n")

    script_dir = os.path.dirname(os.path.abspath(__file__))
    generate_traffic_path = os.path.join(script_dir, "generate-traffic.py")

    process = subprocess.Popen(
        [sys.executable, generate_traffic_path,
         "--users", CONCURRENT_SHOPPERS, "--duration", "999999", *sys.argv[1:]],
        cwd=script_dir,
        stdout=sys.stdout,
        stderr=sys.stderr
    )
    sys.exit(process.wait())
