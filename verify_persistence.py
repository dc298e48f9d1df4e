import time
import subprocess
import httpx
import sys
import os
import signal

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"
ORDER_ID = "persist-order-1"


def start_server(echo=False):
    env = {**os.environ, "DB_ECHO": "True"} if echo else None
    return subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "backend.app.main:app", "--host", "127.0.0.1", "--port", "8000"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env,
    )


def stop_server(proc):
    proc.send_signal(signal.SIGTERM)
    proc.wait()


def wait_for_server(retries=10, delay=2):
    url = f"{BASE_URL}/health"
    print(f"Waiting for server at {url}...")
    for i in range(retries):
        try:
            resp = httpx.get(url)
            if resp.status_code == 200:
                print("✅ Server is up!")
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    print("❌ Server failed to start.")
    return False


def run_verification():
    # 1. Start Server (First Run)
    print("\n--- [Step 1] Starting Server (Initial) ---")
    proc = start_server(echo=True)

    try:
        if not wait_for_server():
            server_logs = proc.communicate(timeout=2)
            print("Server Stdout:", server_logs[0].decode())
            print("Server Stderr:", server_logs[1].decode())
            raise Exception("Server start failed")

        # 2. Settle a commission
        print("\n--- [Step 2] Settling Commission (Persistence Test) ---")
        settle_payload = {
            "order_id": ORDER_ID,
            "delivery_fee": "10.00",
            "driver_id": "persist-driver",
            "commission_percent": "20",
        }
        resp = httpx.post(f"{BASE_URL}{API_PREFIX}/commissions/settle", json=settle_payload)

        if resp.status_code == 409:
            print("⚠️ Commission already finalized (persistence working from previous run?)")
        elif resp.status_code == 200:
            print("✅ Commission Settled")
            print(resp.json())
        else:
            print(f"❌ Settlement Failed: {resp.status_code} {resp.text}")
            raise Exception("Settlement failed")

    finally:
        print("\n--- [Step 3] Stopping Server ---")
        stop_server(proc)

    time.sleep(2)  # Wait for port release

    # 3. Restart Server
    print("\n--- [Step 4] Restarting Server (Verification) ---")
    proc2 = start_server()

    try:
        if not wait_for_server():
            raise Exception("Server restart failed")

        # 4. Read back
        print("\n--- [Step 5] Reading Commission (Post-Restart) ---")
        resp = httpx.get(f"{BASE_URL}{API_PREFIX}/admin/commissions/{ORDER_ID}")
        if resp.status_code != 200:
            print(f"❌ Commission Missing (Persistence Issue?): {resp.status_code} {resp.text}")
            raise Exception("Commission lost after restart")

        record = resp.json()
        print("✅ Commission Persisted!")
        print(record)
        if record["platform_amount"] != "2.00" or record["driver_amount"] != "8.00":
            print(f"❌ Split changed across restart: {record}")
            raise Exception("Split mismatch")

        # 5. Mark paid, then verify the record is frozen
        print("\n--- [Step 6] Verifying Terminal Status ---")
        httpx.post(f"{BASE_URL}{API_PREFIX}/admin/commissions/{ORDER_ID}/mark-paid")
        resp = httpx.post(
            f"{BASE_URL}{API_PREFIX}/commissions/settle",
            json={"order_id": ORDER_ID, "delivery_fee": "99.00"},
        )
        if resp.status_code == 409:
            print("✅ Paid commission rejected re-settlement")
        else:
            print(f"❌ Paid commission accepted re-settlement: {resp.status_code} {resp.text}")

    finally:
        print("\n--- [Step 7] Stopping Server ---")
        stop_server(proc2)


if __name__ == "__main__":
    run_verification()
