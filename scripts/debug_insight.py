"""Quick debug: print the BOS checklist and state from a running bot's API."""
import httpx

BASE = "http://localhost:8080"

insight = httpx.get(f"{BASE}/insight").json()
state = httpx.get(f"{BASE}/state").json()

print(f"{insight.get('strategy')} on {insight.get('pair')}: {insight.get('result')}")
for name, ok in insight.get("checks", {}).items():
    print(f"  {'✓' if ok else '✗'} {name}")
for reason in insight.get("long_reasons", []):
    print(f"  LONG  {reason}")
for reason in insight.get("short_reasons", []):
    print(f"  SHORT {reason}")
print(f"state: {state.get('state')}")
