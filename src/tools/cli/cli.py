#!/usr/bin/env python3
"""User Console command line"""

import random
from datetime import timedelta

import typer
from rich.console import Console
from sqlmodel import Session

from ...config import settings
from ...domain.constants import SUGGESTED_ROLES
from ...domain.entities import User
from ...domain.exceptions import UserAlreadyExistsError
from ...infrastructure.database.database import get_main_engine, init_db
from ...infrastructure.database.models import utc_now
from ...infrastructure.database.repositories import UserRepository

console = Console(force_terminal=True)

_FIRST_NAMES = ["Alex", "Taylor", "Jordan", "Sam", "Casey", "Jamie", "Riley", "Morgan"]
_LAST_NAMES = ["Lee", "Kim", "Patel", "Garcia", "Nguyen", "Smith", "Jones", "Brown"]
_BIOS = [
    "Enjoys building web apps and APIs.",
    "Coffee enthusiast and weekend hiker.",
    "Passionate about design systems.",
    "Loves Python and good tooling.",
    "Fan of functional programming.",
]
_SEED_DAYS_BACK = 180


def generate_users(
    count: int, rng: random.Random | None = None
) -> list[tuple[User, timedelta]]:
    """Sample users paired with how long ago each one signed up."""
    rng = rng or random.Random()
    users = []
    for n in range(1, count + 1):
        user = User(
            id=None,
            name=f"{_FIRST_NAMES[n % len(_FIRST_NAMES)]} {rng.choice(_LAST_NAMES)}",
            email=f"user{n}@example.com",
            role=rng.choice(SUGGESTED_ROLES),
            active=rng.random() < 0.85,
            phone_number=f"+1-555-01{n:02d}{rng.randrange(10)}",
            avatar=(
                f"https://i.pravatar.cc/100?img={n % 70 + 1}"
                if rng.random() < 0.6
                else None
            ),
            bio=rng.choice(_BIOS) if rng.random() < 0.7 else None,
        )
        users.append((user, timedelta(days=rng.randrange(_SEED_DAYS_BACK))))
    return users


def seed_users(session: Session, count: int, rng: random.Random | None = None) -> int:
    """Insert sample users, skipping emails that already exist. Returns inserted."""
    repository = UserRepository(session)
    now = utc_now()
    inserted = 0
    for user, age in generate_users(count, rng):
        try:
            repository.add(user, created_at=now - age)
        except UserAlreadyExistsError:
            continue
        inserted += 1
    return inserted


app = typer.Typer(
    name="users-console",
    help="""User Console

    Examples:
      users-console serve                 - run the API server
      users-console serve --reload        - run with auto-reload
      users-console seed --count 30       - insert 30 sample users
    """,
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def main():
    """Main entry point for the console CLI."""
    app()


@app.command()
def serve(
    host: str = typer.Option(settings.host, "--host", help="Bind address"),
    port: int = typer.Option(settings.port, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the API server with uvicorn."""
    import uvicorn

    console.print(f"🚀 Serving {settings.app_name} on {host}:{port}", style="cyan")
    uvicorn.run("src.main:app", host=host, port=port, reload=reload)


@app.command()
def seed(
    count: int = typer.Option(30, "--count", "-n", min=1, help="Users to generate"),
    rng_seed: int | None = typer.Option(
        None, "--seed", help="Random seed for reproducible data"
    ),
):
    """Insert sample users into the configured database."""
    engine = get_main_engine()
    init_db(engine)
    rng = random.Random(rng_seed) if rng_seed is not None else None

    with Session(engine) as session:
        inserted = seed_users(session, count, rng)
        total = UserRepository(session).count()

    skipped = count - inserted
    console.print(f"✅ Seed complete. Inserted {inserted} users", style="green")
    if skipped:
        console.print(f"  Skipped {skipped} existing emails", style="dim")
    console.print(f"Users in DB: [bold]{total}[/bold]")


if __name__ == "__main__":
    main()
