"""
Initial data inserted into an empty store.

Relationship values use ``{"where": {...}}`` references, resolved after
every item has been inserted.
"""

initial_data = {
    "User": [
        {
            "name": "Boris Bozic",
            "email": "boris@keystone.project",
            "password": "correcthorse",
            "company": "thinkmill",
            "notes": [
                {"where": {"note": "Check the category slugs before launch"}},
            ],
        },
        {
            "name": "Jed Watson",
            "email": "jed@keystone.project",
            "password": "correcthorse",
            "company": "thinkmill",
            "twitterUsername": "JedWatson",
            "notes": [
                {"where": {"note": "Write the release announcement"}},
                {"where": {"note": "Review the access control docs"}},
            ],
        },
        {
            "name": "John Molomby",
            "email": "john@keystone.project",
            "password": "correcthorse",
            "company": "atlassian",
        },
        {
            "name": "Joss Mackison",
            "email": "joss@keystone.project",
            "password": "correcthorse",
            "company": "gelato",
        },
    ],
    "PostCategory": [
        {"name": "Announcements", "slug": "announcements"},
        {"name": "Tutorials", "slug": "tutorials"},
        {"name": "Community", "slug": "community"},
    ],
    "Post": [
        {
            "name": "Hello World",
            "slug": "hello-world",
            "status": "published",
            "author": {"where": {"email": "jed@keystone.project"}},
            "categories": [
                {"where": {"slug": "announcements"}},
            ],
        },
        {
            "name": "Declaring your first list",
            "slug": "declaring-your-first-list",
            "status": "published",
            "author": {"where": {"email": "boris@keystone.project"}},
            "categories": [
                {"where": {"slug": "tutorials"}},
                {"where": {"slug": "community"}},
            ],
        },
        {
            "name": "Access control in depth",
            "slug": "access-control-in-depth",
            "author": {"where": {"email": "jed@keystone.project"}},
            "categories": [
                {"where": {"slug": "tutorials"}},
            ],
        },
        {
            "name": "Meetup recap",
            "slug": "meetup-recap",
            "author": {"where": {"email": "john@keystone.project"}},
        },
    ],
    "Note": [
        {
            "note": "Check the category slugs before launch",
            "user": {"where": {"email": "boris@keystone.project"}},
        },
        {
            "note": "Write the release announcement",
            "user": {"where": {"email": "jed@keystone.project"}},
        },
        {
            "note": "Review the access control docs",
            "user": {"where": {"email": "jed@keystone.project"}},
        },
    ],
}
