#!/usr/bin/env python3
"""
Quick script to trigger an alert on the running API
Usage: python quick_fire_alert.py [fire|motion|access-denied|<CATEGORY> <message>]
"""
import sys
import requests

API_URL = "http://localhost:8000/api/v1"

SHORTCUTS = {
    "fire": "/alerts/fire",
    "motion": "/alerts/motion",
    "access-denied": "/alerts/access-denied",
}


def send_alert(args):
    """Post the alert and print the per-platform summary"""
    if len(args) == 1 and args[0] in SHORTCUTS:
        url = f"{API_URL}{SHORTCUTS[args[0]]}"
        payload = None
    elif len(args) == 2:
        url = f"{API_URL}/alerts/dispatch"
        payload = {"alertCategory": args[0], "message": args[1]}
    else:
        return None

    response = requests.post(url, json=payload, timeout=60)
    response.raise_for_status()
    return response.json()


def print_summary(result):
    print(f"\n📊 {result.get('successCount')}/{result.get('totalPlatforms')} platforms successful")
    for channel in result.get('channels', []):
        status = "✅" if channel.get('success') else "❌"
        line = f"   {status} {channel.get('channel')} ({channel.get('method')})"
        if channel.get('error'):
            line += f": {channel['error']}"
        print(line)


if __name__ == '__main__':
    args = sys.argv[1:] or ["fire"]

    print("=" * 50)
    print("🚨 QUICK ALERT TRIGGER")
    print("=" * 50)

    # Check API
    try:
        requests.get(f"{API_URL}/health", timeout=2)
        print("✅ API is running\n")
    except requests.RequestException:
        print("❌ API not running! Start it first:")
        print("   uvicorn main:app --reload --port 8000")
        sys.exit(1)

    try:
        result = send_alert(args)
    except requests.RequestException as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)

    if result is None:
        print("Usage: python quick_fire_alert.py [fire|motion|access-denied]")
        print("       python quick_fire_alert.py <CATEGORY> <message>")
        print("Example: python quick_fire_alert.py EMERGENCY 'Gas leak in boiler room'")
        sys.exit(1)

    print_summary(result)
    sys.exit(0 if result.get('success') else 2)
