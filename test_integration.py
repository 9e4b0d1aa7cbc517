# System Integration Test
# Run against a live worker: python main.py, then python test_integration.py

import os
import requests

# Configuration
WORKER_URL = os.getenv("WORKER_URL", "http://localhost:8000")

FRAGMENTS = [
    {"start": float(i * 4), "end": float(i * 4 + 4), "text": f"Sentence number {i}."}
    for i in range(20)
]

def test_worker_health():
    """Test worker health"""
    print("\n" + "="*70)
    print("TEST 1: Worker Health Check")
    print("="*70)

    try:
        response = requests.get(f"{WORKER_URL}/health", timeout=5)
        if response.status_code == 200:
            data = response.json()
            print("✅ Worker is healthy")
            print(f"   Version: {data.get('version')}")
            print(f"   FFmpeg: {data['ffmpeg']['status']}")
            return True
        else:
            print(f"❌ Health check failed: {response.status_code}")
            return False
    except requests.RequestException as e:
        print(f"❌ Cannot connect to worker: {e}")
        return False

def test_snap_suggestions():
    """Test sentence snapping"""
    print("\n" + "="*70)
    print("TEST 2: Sentence Snapping")
    print("="*70)

    body = {
        "suggestions": [{"start": 5.5, "end": 45.2, "title": "Hook", "score": 87}],
        "fragments": FRAGMENTS,
    }

    try:
        response = requests.post(f"{WORKER_URL}/clips/snap", json=body, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        print(f"❌ Snap request failed: {e}")
        return False

    snapped = response.json()[0]
    print(f"   5.5-45.2s -> {snapped['start']}-{snapped['end']}s")

    if (snapped['start'], snapped['end']) == (3.85, 48.3):
        print("✅ Suggestion aligned on sentence boundaries")
        return True
    print("❌ Unexpected snap result")
    return False

def test_editing_session():
    """Test split / delete / commit flow"""
    print("\n" + "="*70)
    print("TEST 3: Editing Session")
    print("="*70)

    try:
        session = requests.post(
            f"{WORKER_URL}/sessions",
            json={"suggestion": {"start": 10.0, "end": 40.0}},
            timeout=10
        ).json()
        session_id = session["sessionId"]
        url = f"{WORKER_URL}/sessions/{session_id}"

        requests.post(f"{url}/actions", json={"type": "SET_PLAYHEAD", "time": 15.0}, timeout=10)
        view = requests.post(f"{url}/actions", json={"type": "SPLIT_AT_PLAYHEAD"}, timeout=10).json()
        print(f"   Segments after split: {len(view['segments'])}")

        view = requests.post(
            f"{url}/actions",
            json={"type": "DELETE_SEGMENT", "id": view["segments"][0]["id"]},
            timeout=10
        ).json()
        print(f"   Total duration after delete: {view['totalDuration']}s")

        commit = requests.post(
            f"{url}/commit",
            json={"videoUrl": "https://example.com/source.mp4", "fragments": FRAGMENTS},
            timeout=10
        ).json()
        print(f"   FFmpeg args: {len(commit['command'])}")
    except (requests.RequestException, KeyError) as e:
        print(f"❌ Session flow failed: {e}")
        return False

    if len(view["segments"]) == 1 and view["totalDuration"] == 15.0:
        print("✅ Session flow is consistent")
        return True
    print("❌ Unexpected session state")
    return False

def run_all_tests():
    """Run all integration tests"""
    print("\n" + "="*70)
    print("Clip Worker Integration Tests")
    print("="*70)

    results = []

    # Run tests
    results.append(("Worker Health", test_worker_health()))
    results.append(("Sentence Snapping", test_snap_suggestions()))
    results.append(("Editing Session", test_editing_session()))

    # Summary
    print("\n" + "="*70)
    print("📋 Test Summary")
    print("="*70)

    passed = sum(1 for _, result in results if result)
    total = len(results)

    for test_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"   {status}: {test_name}")

    print("\n" + "="*70)
    print(f"Result: {passed}/{total} tests passed")
    print("="*70)

    return passed == total

if __name__ == "__main__":
    success = run_all_tests()
    exit(0 if success else 1)
