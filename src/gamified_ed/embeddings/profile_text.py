"""Build the profile strings that get embedded."""

from gamified_ed.models.user import User


def registration_profile_text(
    first_name: str,
    last_name: str | None,
    username: str,
    email: str,
    standard: str | None,
) -> str:
    return f"{first_name} {last_name or ''} {username} {email} {standard or ''}"


def profile_update_text(user: User) -> str:
    """Join the user's non-blank profile values with ' | '."""
    parts = [
        user.first_name,
        user.last_name,
        user.username,
        user.email,
        user.bio,
        user.school,
        *user.subjects,
        user.standard,
    ]
    return " | ".join(p for p in parts if p)
