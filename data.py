"""Static category list and the default accounts loaded by `seed_users`."""

from schemas import Category

CATEGORIES = [
    Category(id="1", name="Technology", slug="technology"),
    Category(id="2", name="Travel", slug="travel"),
    Category(id="3", name="Food", slug="food"),
    Category(id="4", name="Lifestyle", slug="lifestyle"),
    Category(id="5", name="Business", slug="business"),
    Category(id="6", name="Health & Wellness", slug="health-wellness"),
    Category(id="7", name="Finance", slug="finance"),
    Category(id="8", name="Education", slug="education"),
    Category(id="9", name="Arts & Culture", slug="arts-culture"),
    Category(id="10", name="Sports", slug="sports"),
    Category(id="11", name="Science", slug="science"),
    Category(id="12", name="Home & Garden", slug="home-garden"),
    Category(id="13", name="Automotive", slug="automotive"),
    Category(id="14", name="Pets", slug="pets"),
    Category(id="15", name="Gaming", slug="gaming"),
]

CATEGORY_SLUGS = frozenset(c.slug for c in CATEGORIES)


def _seed(id, first_name, last_name, email, description, initials=None):
    return {
        "id": id,
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "description": description,
        "profile_image_url": f"https://placehold.co/200x200.png?text={initials}" if initials else None,
        "role": "user",
        "auth_provider": "admin_created",
        "is_blocked": False,
    }


DEFAULT_USERS = (
    _seed("mock-user-123", "Demo", "User", "demo.user@example.com",
          "A passionate writer and reader on CardFeed."),
    _seed("author-ada", "Ada", "Lovelace", "ada.lovelace@example.com",
          "Pioneering computer scientist and writer of the first algorithm.", "AL"),
    _seed("author-marco", "Marco", "Polo Jr.", "marco.polo@example.com",
          "Avid explorer and storyteller, sharing tales from distant lands.", "MP"),
    _seed("author-julia", "Julia", "Childish", "julia.childish@example.com",
          "Culinary enthusiast sharing recipes and food adventures.", "JC"),
    _seed("author-marie", "Marie", "Kondoversy", "marie.kondoversy@example.com",
          "Expert in minimalist living and decluttering.", "MK"),
    _seed("author-elon", "Elon", "Tusk", "elon.tusk@example.com",
          "Entrepreneur discussing sustainable business and future technologies.", "ET"),
    _seed("author-satoshi", "Satoshi", "Notamoto", "satoshi.notamoto@example.com",
          "Demystifying finance and blockchain technology.", "SN"),
    _seed("author-xavier", "Prof.", "Xavier", "prof.xavier@example.com",
          "Educator exploring gamification in learning.", "PX"),
    _seed("author-dreamwell", "Dr.", "Dreamwell", "dr.dreamwell@example.com",
          "Scientist specializing in sleep research.", "DD"),
    _seed("author-patty", "Patty", "Planter", "patty.planter@example.com",
          "Gardening guru sharing tips for urban gardening.", "PP"),
    _seed("author-henry", "Henry", "Ford II", "henry.fordii@example.com",
          "Commentator on electric vehicles and automotive trends.", "HF"),
    _seed("author-cesar", "Cesar", "Millan Jr.", "cesar.millanjr@example.com",
          "Pet behavior expert.", "CM"),
    _seed("author-pacman", "Pac", "Man", "pac.man@example.com",
          "Retro gaming aficionado.", "PM"),
)
