"""
Test helpers: seed accounts with profile documents and sign in over HTTP.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from documents.memory import MemoryDocumentStore, seed_documents
from identity_access.provider_memory import InMemoryIdentityDirectory

SECRET = "secret-123"


def add_user(
    directory: InMemoryIdentityDirectory,
    store: MemoryDocumentStore,
    email: str,
    *,
    role: str = "student",
    year: Optional[str] = None,
    approved: bool = False,
    name: str = "طالب تجريبي",
    secret: str = SECRET,
    with_profile: bool = True,
) -> str:
    identity = directory.add_account(email, secret)
    if with_profile:
        seed_documents(
            store,
            "users",
            {
                identity.uid: {
                    "uid": identity.uid,
                    "name": name,
                    "email": identity.email,
                    "role": role,
                    "approved": approved,
                    "createdAt": datetime.now(timezone.utc),
                    "year": year,
                    "photoURL": None,
                }
            },
        )
    return identity.uid


async def login(client, email: str, secret: str = SECRET):
    return await client.post("/login", data={"email": email, "password": secret})
