"""
Pytest configuration and shared fixtures for the tracefuse test suite.

This module provides:
- A small request file with two named requests
- The trace log and XML report a run of that file produces
- Helpers that write those artefacts to a temporary directory
"""

from pathlib import Path

import pytest

CARS_HTTP = """# @name ListCars
GET {{baseUrl}}/cars

###
# @name AddCar
## TEST-EXPECT-STATUS: [201]
## TEST-HAS-BODY
POST {{baseUrl}}/cars
Content-Type: application/json

{
  "brand": "Toyota",
  "model": "Supra"
}
"""

CARS_LOG = """[14:22:01 INF] Start processing HTTP request GET http://localhost:3001/cars
[14:22:01 INF] Sending HTTP request GET http://localhost:3001/cars
[14:22:01 INF] Received HTTP response headers after 12.4ms - 200
[14:22:01 INF] HTTP Response 200 (OK) was received from 'http://localhost:3001/cars'.
[14:22:01 TRC] Response's body (application/json):
[{"id":1,"brand":"Toyota"}]
[14:22:01 INF] End processing HTTP request after 20.1ms - 200
[14:22:02 INF] Start processing HTTP request POST http://localhost:3001/cars
[14:22:02 TRC] Following HTTP request's body (application/json):
{
  "brand": "Toyota",
  "model": "Supra"
}
[14:22:02 INF] Sending HTTP request POST http://localhost:3001/cars
[14:22:02 INF] Received HTTP response headers after 128.6ms - 201
[14:22:02 INF] HTTP Response 201 (Created) was received from 'http://localhost:3001/cars'.
[14:22:02 TRC] Response's body (application/json):
{"id":2,"brand":"Toyota","model":"Supra"}
[14:22:02 INF] End processing HTTP request after 228.6ms - 201
"""

CARS_REPORT = """<?xml version="1.0" encoding="utf-8"?>
<testsuites>
  <testsuite name="cars" tests="2" failures="0">
    <testcase name="[1] Status code should match one of these: [201]" />
    <testcase name="[2] Response should have body." />
  </testsuite>
  <testsuite name="cars-script" tests="1" failures="0">
    <testcase name="Car list is not empty" />
  </testsuite>
</testsuites>
"""


@pytest.fixture
def cars_http() -> str:
    return CARS_HTTP


@pytest.fixture
def cars_log() -> str:
    return CARS_LOG


@pytest.fixture
def cars_report() -> str:
    return CARS_REPORT


@pytest.fixture
def cars_files(tmp_path: Path):
    """Write the request file, log and report to a temporary directory."""
    http_path = tmp_path / "cars.http"
    log_path = tmp_path / "last-run.log"
    report_path = tmp_path / "last-run-report.xml"
    http_path.write_text(CARS_HTTP, encoding="utf-8")
    log_path.write_text(CARS_LOG, encoding="utf-8")
    report_path.write_text(CARS_REPORT, encoding="utf-8")
    return http_path, log_path, report_path
