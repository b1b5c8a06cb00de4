"""Configuration: build a shell session from a TOML file and drive it in code."""

from __future__ import annotations

import tempfile
from pathlib import Path

from threads_shell import PLAYGROUND, Session, load_config

if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "shell.toml"
        path.write_text(
            "\n".join(
                [
                    "timeout = 10",
                    'prompt = "people> "',
                    'store = "people"',
                    "",
                    "[client]",
                    'type = "local"',
                    "",
                    "[client.options]",
                    f"root = {str(Path(tmp) / 'stores')!r}",
                ]
            )
        )
        config = load_config(path)
        print(f"Loaded: {config}")

        with Session(config) as session:
            session.auth()
            db = session.use(config.store)  # type: ignore[arg-type]
            if db is not None:
                people = db.create_collection(PLAYGROUND.model, PLAYGROUND.schema)
                if people is not None:
                    people.create([PLAYGROUND.adam, PLAYGROUND.eve])
                    people.find(PLAYGROUND.query)
            session.show()

    print("\nDone!")
