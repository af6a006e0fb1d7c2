"""Static metadata describing the assessment service."""

APP_NAME = "LessonAssess"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "LessonAssess lets teachers author multiple-choice assessments for their lessons "
    "and lets students take timed or untimed attempts that are scored automatically."
)
