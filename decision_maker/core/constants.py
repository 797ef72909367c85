"""
Application-wide constants.

This module contains constants used throughout the application to avoid
magic numbers and strings scattered in the codebase.
"""

# Geo
EARTH_RADIUS_MILES = 3958.8
METERS_PER_MILE = 1609.34

# Item Statuses
STATUS_INTERESTED = "interested"
STATUS_NOT_INTERESTED = "notInterested"
STATUS_WATCHED = "watched"
EVENT_STATUSES = (STATUS_INTERESTED, STATUS_NOT_INTERESTED)
MOVIE_STATUSES = (STATUS_INTERESTED, STATUS_NOT_INTERESTED, STATUS_WATCHED)

# Empty-state reasons
EMPTY_PREVIEW = "preview"
EMPTY_LOCATION_DENIED = "locationDenied"
EMPTY_NO_NEARBY = "noNearby"

# Preference domains
DOMAIN_COMEDY = "comedy"
DOMAIN_SHOWS = "shows"
DOMAIN_MOVIES = "movies"
DOMAIN_TV = "tv"

# Storage keys
KEY_SHOWS_PREFS = "showsPreferences"
KEY_COMEDY_PREFS = "comedyPreferences"
KEY_MOVIE_PREFS = "moviePreferences"
KEY_TV_PREFS = "tvPreferences"
KEY_TV_FEED_FILTERS = "tvFeedFilters"
KEY_SHOWS_CONFIG = "showsConfigV1"
KEY_EVENTBRITE_CACHE = "eventbriteCacheV1"
KEY_SPOTIFY_TOKEN = "spotifyToken"
KEY_SPOTIFY_VERIFIER = "spotifyCodeVerifier"
KEY_EVENTBRITE_TOKEN = "eventbriteApiToken"
KEY_EVENTBRITE_QUERY = "eventbriteQuery"
KEY_EVENTBRITE_LOCATION = "eventbriteLocation"
KEY_EVENTBRITE_RADIUS = "eventbriteRadius"
KEY_TICKETMASTER_KEY = "ticketmasterApiKey"
KEY_RECIPES_QUERY = "recipesQuery"
KEY_RECIPES_HIDDEN = "recipesHidden"
KEY_RECIPES_SAVED = "recipesSaved"
KEY_MOVIES_API_KEY = "moviesApiKey"
KEY_TV_API_KEY = "tvApiKey"

# Shows panel
DEFAULT_SHOWS_RADIUS_MILES = 300.0
MIN_SHOWS_RADIUS_MILES = 25.0
MAX_SHOWS_RADIUS_MILES = 1000.0
DEFAULT_ARTIST_LIMIT = 10
MAX_ARTIST_SCAN_LIMIT = 200
EVENTBRITE_LOOKAHEAD_DAYS = 14
MATCH_DESCRIPTION_CHARS = 500

# Comedy panel
COMEDY_MAX_DISTANCE_MILES = 300.0
COMEDY_SEARCH_RADIUS = 200
COMEDY_PAGE_SIZE = 100

# Spotify
SPOTIFY_SCOPE = "user-top-read"
SPOTIFY_VERIFIER_LENGTH = 64
SPOTIFY_TOP_ARTISTS_PAGE_SIZE = 50
SPOTIFY_SUGGESTION_LIMIT = 10
SPOTIFY_MAX_SEEDS = 5

# Ticketmaster proxy
TICKETMASTER_CACHE_TTL_SECONDS = 15 * 60
TICKETMASTER_CACHE_MAX_ENTRIES = 100
TICKETMASTER_MIN_INTERVAL_SECONDS = 0.3

# Eventbrite
EVENTBRITE_CACHE_TTL_SECONDS = 24 * 60 * 60
EVENTBRITE_SERVER_CACHE_MAX_ENTRIES = 200
EVENTBRITE_CLIENT_CACHE_MAX_ENTRIES = 50
EVENTBRITE_DEFAULT_DAYS = 14
EVENTBRITE_MAX_DAYS = 31
EVENTBRITE_DEFAULT_WITHIN = "100.0mi"
EVENTBRITE_DESCRIPTION_CHARS = 240

# Response cache
RESPONSE_CACHE_MAX_MEMORY_ENTRIES = 500
TMDB_CACHE_COLLECTION = "tmdbCache"
TMDB_CACHE_TTL_SECONDS = 6 * 60 * 60
YELP_CACHE_COLLECTION = "yelpCache"
YELP_CACHE_TTL_SECONDS = 30 * 60
EVENTBRITE_CACHE_COLLECTION = "eventbriteCache"
SPOONACULAR_CACHE_COLLECTION = "spoonacularCache"
SPOONACULAR_CACHE_TTL_SECONDS = 6 * 60 * 60

# Yelp
YELP_MAX_PAGE_LIMIT = 50
YELP_DEFAULT_TOTAL_LIMIT = 120
YELP_ABSOLUTE_MAX_LIMIT = 200
YELP_MAX_RADIUS_MILES = 25.0
YELP_MAX_RADIUS_METERS = 40000
YELP_DETAILS_MAX_ENRICH = 40
YELP_DETAILS_CONCURRENCY = 5

# Restaurants panel
RESTAURANTS_MAX_DISTANCE_METERS = 160934

# Recipes panel
RECIPES_DISPLAY_LIMIT = 10
SPOONACULAR_RESULTS_NUMBER = 50

# Movies panel
DEFAULT_INTEREST = 3
INITIAL_DISCOVER_PAGES = 3
MAX_DISCOVER_PAGES = 10
MAX_DISCOVER_PAGES_LIMIT = 30
MAX_CREDIT_REQUESTS = 20
MIN_VOTE_AVERAGE = 7.0
MIN_VOTE_COUNT = 50
MIN_PRIORITY_RESULTS = 12
MIN_FEED_RESULTS = 10

# TV feed filters
MIN_FILTER_YEAR = 1800
MAX_FILTER_YEAR = 3000
MAX_USER_RATING = 10.0
MIN_USER_RATING = 0.0

# User Input Limits
MAX_QUERY_LENGTH = 200
