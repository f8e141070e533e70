"""Activity and artefact kinds attached to chain nodes."""

from __future__ import annotations

from enum import Enum


class Activity(str, Enum):
    """Named pipeline states, one per kind of step."""

    CHECKOUT = "checkout"
    CONFIGURING = "configuring"
    BUILDING_SETTINGS = "building_settings"
    DISCOVERING_DEVICES = "discovering_devices"
    BUILDING = "building"
    TESTING = "testing"
    ARCHIVING = "archiving"
    EXPORTING = "exporting"
    DEPLOYING = "deploying"
    POLLING = "polling"


class Artefact(str, Enum):
    APP_BUNDLE = "app_bundle"
    TEST_REPORT = "test_report"
    ARCHIVE_BUNDLE = "archive_bundle"
    IPA_FILE = "ipa_file"
    OTA_DISTRIBUTION = "ota_distribution"
