"""Application entry point."""
import os
import click
from flask.cli import with_appcontext
from attendance_engine import create_app, db
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Create Flask app
app = create_app(os.getenv('FLASK_ENV', 'development'))


@app.cli.command()
@with_appcontext
def reset_db():
    """Drop and recreate the document table, optionally re-seeding demo data."""
    if click.confirm('This will delete all stored documents. Continue?'):
        app.extensions['attendance_engine'].shutdown()
        db.drop_all()
        db.create_all()
        click.echo('Database reset complete.')

        if click.confirm('Seed demo users and timetable?'):
            from attendance_engine.services.seed_service import SeedService
            users = SeedService.seed_all(app.extensions['attendance_engine'])
            click.echo(f'Seeded {len(users)} users.')


if __name__ == '__main__':
    # Development server
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '127.0.0.1')
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.run(host=host, port=port, debug=debug)
