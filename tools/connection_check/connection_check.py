"""
Prueba de conexión.

Abre la conexión con el contexto compartido y deja en el reporte la
versión del servidor, la base y el usuario con el que se conectó.
No modifica nada.
"""

from bepoz_toolkit.sdk import ToolSession, main_entry


SERVER_INFO_SQL = (
    "SELECT @@SERVERNAME AS server_name, "
    "DB_NAME() AS database_name, "
    "SUSER_SNAME() AS login_name, "
    "@@VERSION AS server_version"
)


def main(session: ToolSession) -> str:
    context = session.context
    print(f"Conectando a {context.sql_server} / {context.sql_database}...")

    info = session.fetch_one(SERVER_INFO_SQL) or {}
    version_line = str(info.get("server_version") or "").splitlines()[0:1]

    session.report.add_item(
        server=info.get("server_name") or context.sql_server,
        database=info.get("database_name") or context.sql_database,
        login=info.get("login_name"),
        version=version_line[0].strip() if version_line else "",
    )
    for key, value in session.report.items[-1].items():
        print(f"  {key}: {value}")

    if info.get("database_name") and info["database_name"].lower() != context.sql_database.lower():
        session.report.warn(
            f"La base activa es '{info['database_name']}', no '{context.sql_database}'"
        )

    return f"Conexión correcta a {context.sql_server}"


if __name__ == "__main__":
    main_entry(main)
