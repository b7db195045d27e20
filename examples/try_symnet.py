#!/usr/bin/env python3
"""
Interactive SymNet Test Script.

This script demonstrates the high-level SymNetClient API.
Run it with the device IP to enable pushes, read a few controllers and
flash the front panel.
"""

import sys
import time
import logging
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path

# Add SDK to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from symnet import SymNetClient, SymNetError
from symnet.conversions import api_to_fader

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    if len(sys.argv) < 2:
        print("Usage: try_symnet.py <device-ip> [control-id]")
        return

    host = sys.argv[1]
    control_id = int(sys.argv[2]) if len(sys.argv) > 2 else 1000

    client = SymNetClient(host, debug=True)
    client.subscribe_push(lambda records: print(f"Push: {records}"))

    print(f"\nConnecting to {host}...")
    if not client.connect():
        print("Failed to connect! Retrying in the background, Ctrl+C to stop.")

    try:
        print("push state:", client.push_state(True).result(timeout=5))
        value = client.control_get(control_id).result(timeout=5)
        print(f"get {control_id}: {value} ({api_to_fader(value)} dB)")
        print("refresh push:", client.push_refresh().result(timeout=5))
        print("get block:", client.control_get_block(control_id, 10).result(timeout=5))
        print("flash:", client.flash_unit().result(timeout=5))

        print("\nListening for pushes for 10 seconds (Ctrl+C to stop)...")
        time.sleep(10)

    except (SymNetError, FutureTimeout) as e:
        print(f"Error: {e}")
    except KeyboardInterrupt:
        print("\nStopped by user")
    finally:
        client.disconnect()
        print("Disconnected")


if __name__ == "__main__":
    main()
