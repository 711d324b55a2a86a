"""Stable filename tests."""

from __future__ import annotations

import hashlib

import pytest

from gallerysync.naming import resolve_extension, safe_filename, stable_filename


def test_same_inputs_give_same_name() -> None:
    assert stable_filename("Buddy.jpg", "id1") == stable_filename("Buddy.jpg", "id1")


def test_same_display_name_different_ids_do_not_collide() -> None:
    assert stable_filename("Buddy", "id1") != stable_filename("Buddy", "id2")


def test_name_layout() -> None:
    fingerprint = hashlib.sha1(b"abc123").hexdigest()[:10]

    assert stable_filename("Buddy at 8 weeks.JPG", "abc123") == f"Buddy_at_8_weeks_{fingerprint}.jpg"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  Litter   A  ", "Litter_A"),
        ("puppy (1)!", "puppy_1"),
        ("ok-name_1.v2", "ok-name_1.v2"),
        ("***", "photo"),
        ("", "photo"),
    ],
)
def test_safe_filename(raw: str, expected: str) -> None:
    assert safe_filename(raw) == expected


def test_placeholder_base_is_stable_across_calls() -> None:
    assert stable_filename("???.png", "x").startswith("photo_")
    assert stable_filename("???.png", "x") == stable_filename("???.png", "x")


@pytest.mark.parametrize(
    "name, mime, expected",
    [
        ("a.PNG", "image/png", ".png"),
        ("a.jpeg", None, ".jpeg"),
        ("no-extension", "image/webp", ".webp"),
        ("scan.pdf", "image/png", ".png"),
        ("mystery", "application/octet-stream", ".jpg"),
        ("mystery", None, ".jpg"),
    ],
)
def test_resolve_extension(name: str, mime, expected: str) -> None:
    assert resolve_extension(name, mime) == expected
