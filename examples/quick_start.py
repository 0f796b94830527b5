#!/usr/bin/env python3
"""
Quick Start - A persistent scoreboard in a few lines of code.

This example demonstrates:
1. Storing nested values and updating them with dot paths
2. Counters, lists and defaults (inc, push, ensure)
3. Querying the whole collection
4. Live views that write through on mutation

Usage:
    python examples/quick_start.py
"""

import logging

from trove import Collection


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    # In-memory so the example leaves nothing behind
    with Collection("scoreboard", in_memory=True) as db:
        db.changed(lambda key, old, new: print(f"  changed {key}: {old} -> {new}"))

        for name in ["alice", "bob", "carol"]:
            db.ensure(name, {"wins": 0, "badges": []})

        db.inc("alice", "wins")
        db.math("bob", "add", 3, "wins")
        db.push("bob", "hat-trick", "badges")

        print()
        print(f"Bob's wins: {db.get('bob', 'wins')}")
        print(f"Anyone with a badge: {db.find_index(lambda p, key: bool(p['badges']))}")
        print(f"Total wins: {db.reduce(lambda acc, p, key: acc + p['wins'], 0)}")

        # Edits to the view are saved immediately
        carol = db.observe("carol")
        carol["badges"].append("newcomer")
        print(f"Carol after observe: {db.get('carol')}")

        ticket = db.autonum()
        db.set(ticket, {"title": "Rematch", "players": ["alice", "bob"]})
        print(f"Opened ticket {ticket}")


if __name__ == "__main__":
    main()
