import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import OpenAI


def get_openai_client() -> OpenAI:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=api_key)


def apply_cors(app: FastAPI):
    # local dev frontend (vite)
    default_origins = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    origins = os.getenv("CORS_ALLOW_ORIGINS")
    if origins:
        allowed_origins = [o.strip() for o in origins.split(",") if o.strip()]
    else:
        allowed_origins = default_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
