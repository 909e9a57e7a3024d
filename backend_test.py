import requests
import sys
import os
from datetime import datetime, timedelta, timezone


class UniConnectAPITester:
    def __init__(self, server_url=None):
        self.server_url = (server_url or os.environ.get("UNICONNECT_SERVER_URL", "http://localhost:8000")).rstrip("/")
        self.base_url = f"{self.server_url}/api/v1"
        self.session = requests.Session()
        self.access_token = None
        self.team_id = None
        self.event_id = None
        self.tests_run = 0
        self.tests_passed = 0
        self.test_results = []

    def log_test(self, name, success, details=""):
        """Log test result"""
        self.tests_run += 1
        if success:
            self.tests_passed += 1
            print(f"✅ {name}")
        else:
            print(f"❌ {name} - {details}")

        self.test_results.append({
            "test": name,
            "success": success,
            "details": details
        })

    def run_test(self, name, method, endpoint, expected_status, data=None, headers=None, form=None, root=False):
        """Run a single API test and return (success, envelope data)"""
        url = f"{self.server_url if root else self.base_url}/{endpoint}".rstrip("/")
        test_headers = {}
        if self.access_token:
            test_headers["Authorization"] = f"Bearer {self.access_token}"
        if headers:
            test_headers.update(headers)

        try:
            response = self.session.request(
                method,
                url,
                json=data if form is None else None,
                data=form,
                headers=test_headers,
                timeout=15,
            )

            success = response.status_code == expected_status
            details = f"Status: {response.status_code}"

            body = {}
            if response.content:
                try:
                    body = response.json()
                except ValueError:
                    details += f", Response: {response.text[:100]}"
            if not success and body:
                details += f", Error: {body.get('message', 'Unknown error')}"

            self.log_test(name, success, details)
            return success, body.get("data", body) if success else {}

        except requests.RequestException as e:
            self.log_test(name, False, f"Exception: {str(e)}")
            return False, {}

    def test_health_endpoints(self):
        """Test banner and health endpoints"""
        print("\n🔍 Testing Health Endpoints...")
        self.run_test("Root banner", "GET", "", 200, root=True)
        self.run_test("Liveness", "GET", "health", 200, root=True)
        self.run_test("Database connectivity", "GET", "health/db", 200, root=True)

    def test_public_endpoints(self):
        """Test endpoints that don't require auth"""
        print("\n🔍 Testing Public Endpoints...")
        self.run_test("List live events", "GET", "events?status=live", 200)
        self.run_test("List gallery items", "GET", "gallery?limit=5", 200)
        self.run_test("Gallery categories", "GET", "gallery/categories", 200)
        self.run_test("Unknown event", "GET", "events/999999999", 404)

    def test_auth_guard(self):
        """Protected routes must refuse anonymous callers"""
        print("\n🔍 Testing Auth Guard...")
        self.run_test("Current user without token", "GET", "auth/current-user", 401)
        self.run_test("My teams without token", "GET", "teams", 401)

    def test_login(self):
        """Log in with a verified account taken from the environment"""
        email = os.environ.get("UNICONNECT_SMOKE_EMAIL")
        password = os.environ.get("UNICONNECT_SMOKE_PASSWORD")
        if not email or not password:
            print("\n❌ Skipping login - set UNICONNECT_SMOKE_EMAIL and UNICONNECT_SMOKE_PASSWORD")
            return False

        print("\n🔍 Testing Login...")
        success, data = self.run_test("Login", "POST", "auth/login", 200, {"email": email, "password": password})
        if success and data.get("access_token"):
            self.access_token = data["access_token"]
            print(f"   Access token obtained: {self.access_token[:20]}...")
            return True
        return False

    def test_team_and_event_flow(self):
        """Create a team and a live event, register, then clean up"""
        print("\n🔍 Testing Team/Event Flow...")
        stamp = datetime.now().strftime("%H%M%S")

        success, team = self.run_test("Create team", "POST", "teams", 201, {
            "team_name": f"Smoke Team {stamp}",
            "members": [
                {"full_name": "Smoke Member", "usn": f"1SM{stamp}", "current_semester": 3, "department": "CSE"},
            ],
        })
        if success:
            self.team_id = team["id"]

        event_date = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
        success, event = self.run_test("Create live event", "POST", "events", 201, form={
            "name": f"Smoke Event {stamp}",
            "description": "Created by the smoke tester",
            "category": "Technical,Workshop",
            "date": event_date,
            "start_time": "10:00",
            "end_time": "12:00",
            "location": "Main Hall",
            "max_seats": "5",
            "min_team_size": "1",
            "status": "live",
        })
        if success:
            self.event_id = event["id"]

        if self.team_id and self.event_id:
            self.run_test("Register team", "POST", f"events/{self.event_id}/register", 200, {"team_id": self.team_id})
            self.run_test("Duplicate registration", "POST", f"events/{self.event_id}/register", 409, {"team_id": self.team_id})
            self.run_test("My registered events", "GET", "events/my/registered", 200)
            self.run_test("Delete registered team", "DELETE", f"teams/{self.team_id}", 400)
            self.run_test("Unregister team", "DELETE", f"events/{self.event_id}/unregister/{self.team_id}", 200)

        if self.event_id:
            self.run_test("Delete event", "DELETE", f"events/{self.event_id}", 200)
        if self.team_id:
            self.run_test("Delete team", "DELETE", f"teams/{self.team_id}", 200)

        self.run_test("Gallery stats", "GET", "gallery/stats", 200)

    def run_all_tests(self):
        """Run all tests in sequence"""
        print("🚀 Starting UniConnect API Testing...")
        print(f"Testing against: {self.base_url}")

        self.test_health_endpoints()
        self.test_public_endpoints()
        self.test_auth_guard()

        if self.test_login():
            self.test_team_and_event_flow()

        return self.print_summary()

    def print_summary(self):
        """Print test summary"""
        print(f"\n📊 Test Summary:")
        print(f"Tests run: {self.tests_run}")
        print(f"Tests passed: {self.tests_passed}")
        if self.tests_run:
            print(f"Success rate: {(self.tests_passed/self.tests_run*100):.1f}%")

        if self.tests_passed < self.tests_run:
            print(f"\n❌ Failed tests:")
            for result in self.test_results:
                if not result['success']:
                    print(f"  - {result['test']}: {result['details']}")

        return self.tests_passed == self.tests_run


def main():
    tester = UniConnectAPITester()
    success = tester.run_all_tests()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
