# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Shared fixtures: offline embedding model and on-disk sample checkouts."""

from pathlib import Path
from typing import Dict, List

import pytest

from repo_context.codebase.embeddings.models import EmbeddingModelConfig, HashingEmbeddingModel
from repo_context.codebase.models import SourceFile


SAMPLE_REPO: Dict[str, str] = {
    "src/auth.js": """import { hashPassword } from './crypto';
import express from 'express';

/**
 * Check a user's password against the stored hash.
 */
export function verifyPassword(user, password) {
  return user.hash === hashPassword(password);
}

export class AuthService {
  async login(username, password) {
    return verifyPassword({ hash: username }, password);
  }
}
""",
    "src/crypto.js": """// Password hashing helpers
export function hashPassword(password, salt = 'x') {
  return password + salt;
}
""",
    "src/models/user.ts": """export interface User {
  id: string;
  name: string;
}

export type UserId = string;

export class UserRepository {
  findById(id: string): User | undefined {
    return undefined;
  }
}
""",
    "scripts/report.py": """import os
from collections import OrderedDict


def render_report(rows, title=None):
    \"\"\"Render rows as a text report.\"\"\"
    return title


class Reporter:
    '''Collects report rows.'''
""",
}


@pytest.fixture
def sample_repo() -> Dict[str, str]:
    return dict(SAMPLE_REPO)


@pytest.fixture
def hashing_model() -> HashingEmbeddingModel:
    """Deterministic 64-dim model; no downloads."""
    return HashingEmbeddingModel(
        EmbeddingModelConfig(model_type="hashing", model_name="hashing-64", dimension=64)
    )


def write_checkout(root: Path, files: Dict[str, str]) -> List[SourceFile]:
    """Write ``files`` under ``root`` and return them as SourceFile records."""
    records = []
    for rel_path, content in files.items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        records.append(SourceFile(path=rel_path, content=content))
    return records


@pytest.fixture
def sample_checkout(tmp_path: Path) -> List[SourceFile]:
    """The sample repository written to ``tmp_path/repo``."""
    return write_checkout(tmp_path / "repo", SAMPLE_REPO)
