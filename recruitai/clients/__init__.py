from .recruiting_client import RecruitingApiClient

__all__ = ['RecruitingApiClient']
