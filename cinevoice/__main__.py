#!/usr/bin/env python3
"""
Main entry point for the CineVoice assistant.
Allows running the package with: python -m cinevoice
"""
import sys

from .config import get_config
from .exceptions import DeviceUnavailable
from . import VoiceAssistant


def _read_lines():
    """Typed messages from stdin until EOF or 'quit'."""
    while True:
        try:
            line = input("👤 ")
        except EOFError:
            return
        if line.strip().lower() in ("quit", "exit"):
            return
        yield line


def main():
    """Command-line interface for the voice assistant."""

    text_mode = "--text" in sys.argv
    use_tts = False if "--no-tts" in sys.argv else None

    max_turns = None
    for arg in sys.argv[1:]:
        if arg.startswith("--turns="):
            try:
                max_turns = int(arg.split("=")[1])
            except (ValueError, IndexError):
                print("❌ Invalid turns value. Use --turns=N with N >= 1")
                sys.exit(1)
            if max_turns < 1:
                print("❌ Invalid turns value. Use --turns=N with N >= 1")
                sys.exit(1)

    # Load configuration from environment
    try:
        config = get_config(enable_tts=use_tts)
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    assistant = VoiceAssistant(config)

    if "--list-devices" in sys.argv:
        try:
            devices = assistant.list_devices()
        except DeviceUnavailable as e:
            print(f"❌ {e}")
            sys.exit(1)
        for device in devices:
            marker = " (default)" if device.is_default else ""
            print(f"{device.kind:6s} {device.id:>4s}  {device.display_name}{marker}")
        return

    # Show configuration
    if config.enable_tts:
        print(f"🔊 Speech: {config.tts_provider} voice (use --no-tts to disable)")
    else:
        print("📝 Text replies only")

    try:
        if text_mode:
            print("⌨️  Type a message (or 'quit')")
            assistant.run_text(_read_lines())
        else:
            assistant.run(max_turns=max_turns)
    except KeyboardInterrupt:
        print("\n👋 Bye")
    finally:
        assistant.close()


if __name__ == "__main__":
    main()
