"""Supabase client factories. The app's client is cached via Streamlit."""
import logging

import streamlit as st
from dotenv import load_dotenv
from supabase import Client

from examhall.database import DatabaseClient, create_supabase_client

load_dotenv()

logger = logging.getLogger(__name__)


@st.cache_resource
def get_supabase() -> Client:
    logger.info("Creating Supabase client")
    return create_supabase_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return create_supabase_client()


def get_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())


def get_database_uncached() -> DatabaseClient:
    return DatabaseClient(get_supabase_uncached())
