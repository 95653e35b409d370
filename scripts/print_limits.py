#!/usr/bin/env python3
"""Print upload limits and generation settings (from config). Run from repo root: python scripts/print_limits.py"""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from briefbot.core.config import settings
from briefbot.ingest.extractor import SUPPORTED_EXTENSIONS


def main():
    """Print MAX_FILES, MAX_FILE_MB, MAX_BRIEF_WORDS, retry policy, and the accepted file types."""
    print("Upload & generation limits")
    print("--------------------------")
    print(f"  MAX_FILES                          = {settings.max_files} (files per submission)")
    print(f"  MAX_FILE_MB                        = {settings.max_file_mb} MB (max size per uploaded file)")
    print(f"  MAX_BRIEF_WORDS                    = {settings.max_brief_words} (brief word budget)")
    print(f"  GENERATION_MAX_ATTEMPTS            = {settings.generation_max_attempts} (attempts per generation call)")
    print(f"  GENERATION_INITIAL_BACKOFF_SECONDS = {settings.generation_initial_backoff_seconds} (doubles per retry)")
    print(f"  CHAT_MODEL                         = {settings.chat_model}")
    print(f"  STORE_BACKEND                      = {settings.store_backend} (data root: {settings.data_root})")
    print(f"  Accepted types                     = {', '.join(sorted(SUPPORTED_EXTENSIONS))}")
    print("")
    print("Env: MAX_FILES, MAX_FILE_MB, MAX_BRIEF_WORDS, GENERATION_MAX_ATTEMPTS, ... (see .env.example)")


if __name__ == "__main__":
    main()
