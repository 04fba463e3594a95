"""
Clients Supabase partagés.
- anon: lectures publiques (catalogue) et auth.get_user
- service-role: écritures serveur sur 'orders' (transitions de statut)
- utilisateur: client anon authentifié par le token bearer (RLS actif)
"""
from typing import Optional
from supabase import create_client, Client
from storefront.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

_anon_client: Optional[Client] = None
_service_client: Optional[Client] = None

def _require_url() -> str:
    if not SUPABASE_URL:
        raise RuntimeError("SUPABASE_URL manquant")
    return SUPABASE_URL

def get_supabase() -> Client:
    global _anon_client
    if _anon_client is None:
        _anon_client = create_client(_require_url(), SUPABASE_ANON)
    return _anon_client

def get_service_supabase() -> Client:
    """Client service-role (bypass RLS); ne jamais l'exposer au navigateur."""
    global _service_client
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour les écritures de commandes")
    if _service_client is None:
        _service_client = create_client(_require_url(), SUPABASE_SERVICE_KEY)
    return _service_client

def get_user_supabase(user_token: str) -> Client:
    """Nouveau client par requête: le token utilisateur ne doit pas fuiter dans le client partagé."""
    if not user_token:
        raise ValueError("user_token requis")
    client = create_client(_require_url(), SUPABASE_ANON)
    client.postgrest.auth(user_token)
    return client
