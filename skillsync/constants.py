from pathlib import Path

import platformdirs

from .typed_path import AbsDir, RelDir, RelFile

SKILLS_NAME: str = "skills"
SKILLS_ROOT: AbsDir = AbsDir(Path.home() / ".skills")
SKILLS_STORE: RelDir = RelDir("store")
SKILLS_CONFIG: RelFile = RelFile("config.json")
SKILLS_CACHE: AbsDir = AbsDir(Path(platformdirs.user_cache_dir(SKILLS_NAME)))
DEFAULT_BRANCH: str = "main"
EMPTY_FINGERPRINT: str = "empty"

SKILLS_CACHE.path.mkdir(parents=True, exist_ok=True)

LOADING_SUFFIX: str = "..."
DONE_SUFFIX: str = "[done]"
FAILURE_SUFFIX: str = "[failed]"
