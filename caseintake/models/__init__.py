"""Domain records for cases, images and notifications."""
