"""Example usage of the json_tables library."""

import asyncio
from pathlib import Path

from json_tables import Database
from json_tables.bootstrap import get_subbot_config, init_tables

db_file = Path("./example_data/database.json")


async def main() -> None:
    async with Database(db_file) as db:
        await init_tables(db)

        print("Registering users...")
        for user_id, name in [("111@s.whatsapp.net", "Alice"), ("222@s.whatsapp.net", "Bob")]:
            result = await db.execute(
                "INSERT INTO usuarios (id, nombre, registered) VALUES ($1, $2, true) "
                "ON CONFLICT (id) DO NOTHING RETURNING *",
                [user_id, name],
            )
            user = result.rows[0]
            print(f"  {user['id']}: money={user['money']} role={user['role']}")

        await db.execute(
            "UPDATE usuarios SET money = money + $1 WHERE id = $2",
            [250, "111@s.whatsapp.net"],
        )

        for command in ["menu", "menu", "play"]:
            await db.execute(
                "INSERT INTO stats (command, count) VALUES ($1, 1) "
                "ON CONFLICT (command) DO UPDATE SET count = stats.count + 1",
                [command],
            )

        print("\nRichest users:")
        result = await db.execute("SELECT id, money FROM usuarios ORDER BY money DESC LIMIT 5")
        for row in result.rows:
            print(f"  {row['id']}: {row['money']}")

        print("\nCommand usage:")
        result = await db.execute("SELECT * FROM stats ORDER BY count DESC")
        for row in result.rows:
            print(f"  {row['command']}: {row['count']}")

        print("\nTable sizes:")
        result = await db.execute(
            "SELECT relname AS tabla, n_live_tup AS filas FROM pg_stat_user_tables"
        )
        for row in result.rows:
            print(f"  {row['tabla']}: {row['filas']} rows, {row['tamaño']}")

        config = await get_subbot_config(db, "333:12@s.whatsapp.net")
        print(f"\nSubbot prefixes: {config['prefix']}")

    print(f"\nData written to {db_file} ({db_file.stat().st_size} bytes)")
    print("Try the shell:")
    print(f"  json-tables {db_file}")


if __name__ == "__main__":
    asyncio.run(main())
