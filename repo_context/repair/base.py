# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Base types for source repairs.

A repair is an ordered pipeline of steps. Each step is a pure function
``content -> (content, fixes)`` guarded by a precondition predicate, so it
can be unit-tested on its own against fixed before/after fixtures.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, List, Optional, Tuple

from repo_context.codebase.models import Fix, FixDescriptor

StepOutput = Tuple[str, List[FixDescriptor]]

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class RepairResult:
    """Outcome of a repair.

    Attributes:
        fixed: True when the content changed
        content: Repaired content (the original when nothing applied)
        fixes: Descriptors of every applied repair
        should_commit: True when the change is material, not just whitespace
        errors: Internal failures swallowed by the repairer
    """

    fixed: bool
    content: str
    fixes: List[FixDescriptor] = field(default_factory=list)
    should_commit: bool = False
    errors: List[str] = field(default_factory=list)

    @classmethod
    def unchanged(cls, content: str, errors: Optional[List[str]] = None) -> "RepairResult":
        return cls(fixed=False, content=content, errors=errors or [])

    def to_fix(self, file_path: str, original_content: str, stage: str) -> Fix:
        """Convert into the Fix record aggregated on the symbol graph."""
        return Fix(
            file_path=file_path,
            original_content=original_content,
            fixed_content=self.content,
            fixes=list(self.fixes),
            should_commit=self.should_commit,
            stage=stage,
        )


@dataclass(frozen=True)
class RepairStep:
    """A single tagged repair.

    Attributes:
        name: Fix type tag reported in descriptors
        precondition: Cheap check that the step has something to do
        transform: Pure rewrite, returning new content and descriptors
        languages: Languages the step understands (None = all)
    """

    name: str
    precondition: Callable[[str], bool]
    transform: Callable[[str], StepOutput]
    languages: Optional[FrozenSet[str]] = None

    def supports(self, language: str) -> bool:
        return self.languages is None or language in self.languages

    def run(self, content: str, language: str) -> StepOutput:
        if not self.supports(language) or not self.precondition(content):
            return content, []
        return self.transform(content)


def is_material_change(original: str, fixed: str) -> bool:
    """True when the two texts differ in more than whitespace."""
    return _WHITESPACE_RE.sub("", original) != _WHITESPACE_RE.sub("", fixed)
