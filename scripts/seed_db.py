from __future__ import annotations

import importlib

from dotenv import load_dotenv

from presencia.config import get_settings_module
from presencia.database.bootstrap import seed_demo_data


def main() -> None:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    seed_demo_data(db_config)

    print(
        "OK: Seeded demo subjects, class options and accounts -> "
        f"{db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"
    )


if __name__ == "__main__":
    main()
