"""
Simple script to test the Neo4j connection and show what the graph holds.
Run this to diagnose connection issues.
"""

import sys
import traceback

from neo4j import GraphDatabase

from jobgraph.config import get_settings


NODE_LABELS = ("User", "Skill", "Job", "Location", "Users")
RELATIONSHIP_TYPES = ("HAS_SKILL", "WANTS_LOCATION", "REQUIRES_SKILL", "AT_LOCATION", "LIKES", "DISLIKES", "KNOWS", "JOINED")


def test_connection():
    """Test Neo4j connection and show basic stats."""
    settings = get_settings()
    print(f"Testing connection to: {settings.neo4j_uri}")
    print(f"User: {settings.neo4j_user}")
    print(f"Password: {'*' * len(settings.neo4j_password)}")
    print()

    try:
        driver = GraphDatabase.driver(
            settings.neo4j_uri,
            auth=(settings.neo4j_user, settings.neo4j_password),
        )

        with driver.session(database=settings.neo4j_database) as session:
            session.run("RETURN 1 AS test").single()
            print("✓ Connection successful!")

            for label in NODE_LABELS:
                record = session.run(f"MATCH (n:{label}) RETURN count(n) AS cnt").single()
                print(f"✓ {label} nodes: {record['cnt'] if record else 0}")

            for rel_type in RELATIONSHIP_TYPES:
                record = session.run(f"MATCH ()-[r:{rel_type}]->() RETURN count(r) AS cnt").single()
                print(f"✓ {rel_type} relationships: {record['cnt'] if record else 0}")

            records = session.run(
                "MATCH (u:User) RETURN u.id AS id, u.firstname AS firstname LIMIT 5"
            ).data()
            if records:
                print("\nSample users:")
                for r in records:
                    print(f"  - id: {r['id']}, firstname: {r.get('firstname', 'N/A')}")

        driver.close()
        print("\n✓ All checks passed!")

    except Exception as e:  # pylint: disable=broad-exception-caught
        print(f"\n✗ Error: {e}")
        traceback.print_exc()
        return False

    return True


if __name__ == "__main__":
    test_success = test_connection()  # pylint: disable=invalid-name
    sys.exit(0 if test_success else 1)
