"""
Remote access services: profile rows and avatar blobs on Supabase,
plus the shared data types, errors and configuration.
"""
