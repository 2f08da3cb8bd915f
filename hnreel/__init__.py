"""
hnreel - async Hacker News client with stale-while-revalidate caching.
"""
