from __future__ import annotations

"""Example script running the people walkthrough against a live CouchDB."""

import asyncio
import json
import logging
import os

from couchfluent import operations
from couchfluent.log import configure_logging

PEOPLE = [
    {"name": "jeff", "role": "dean"},
    {"name": "annie", "role": "student"},
]

BY_ROLE = {
    "byRole": {"map": "function(doc) { if (doc.role) { emit(doc.role, doc.name); } }"},
    "countByRole": {
        "map": "function(doc) { if (doc.role) { emit(doc.role, 1); } }",
        "reduce": "_count",
    },
}


async def main() -> None:
    """Create, populate, query and tear down a ``people`` database."""

    configure_logging(logging.DEBUG if os.getenv("DEMO_VERBOSE") else logging.INFO)
    operations.init(url=os.getenv("COUCHDB_URL"))
    try:
        if (await operations.check_db_exists(operations.current().resolve("people")))[0]:
            await operations.destroy("people")

        await operations.create("people")
        inserted = await operations.insert(PEOPLE).with_key("name").into("people")
        print("inserted:", ", ".join(body["id"] for body in inserted))

        await operations.add_design("people", BY_ROLE).to("people")
        students = await operations.get_view("people", "byRole").with_params({"key": "student"}).from_("people")
        print("students:", json.dumps(students, indent=2))

        listing = await operations.get_list().from_("people")
        print("ids:", operations.extract_ids(listing["rows"]))

        print("jeff:", await operations.get("jeff").from_("people"))
        print("deleted annie:", await operations.delete_doc("annie").from_("people"))

        await operations.destroy("people")
        print("exists after destroy:", await operations.check_db_exists(operations.current().resolve("people")))
    finally:
        await operations.shutdown()


if __name__ == "__main__":
    """Execute demo flow when run as a script."""

    asyncio.run(main())
