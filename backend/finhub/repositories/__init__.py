from finhub.repositories.peers import PeerRepository

__all__ = ["PeerRepository"]
