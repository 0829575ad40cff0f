import os
import uvicorn
from dotenv import load_dotenv

def main():
    base_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
    dotenv_path = os.path.join(base_dir, '.env')
    print(f"Loading env from {dotenv_path}...")
    load_dotenv(dotenv_path)

    db_url = os.environ.get("DATABASE_URL")
    print(f"DATABASE_URL: {db_url.split(':')[0]}://..." if db_url else "DATABASE_URL: not set, using SQLite")

    port = int(os.environ.get("PORT", "8000"))
    print(f"Starting SMO Social admin at http://0.0.0.0:{port}")
    uvicorn.run("smo_social.main:app", host="0.0.0.0", port=port, reload=os.environ.get("RELOAD") == "1")

if __name__ == "__main__":
    main()
